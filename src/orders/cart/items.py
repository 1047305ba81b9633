"""Cart commands: create, add and remove lines."""

from protean import handle
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from orders.cart.cart import ShoppingCart
from orders.domain import orders


@orders.command(part_of="ShoppingCart")
class CreateCart:
    customer_id = Identifier()  # Optional for guest carts
    session_id = String(max_length=255)


@orders.command(part_of="ShoppingCart")
class AddToCart:
    cart_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier()
    quantity = Integer(required=True, min_value=1)


@orders.command(part_of="ShoppingCart")
class RemoveFromCart:
    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)


@orders.command_handler(part_of=ShoppingCart)
class ManageCartHandler:
    @handle(CreateCart)
    def create_cart(self, command):
        cart = ShoppingCart.create(customer_id=command.customer_id, session_id=command.session_id)
        current_domain.repository_for(ShoppingCart).add(cart)
        return str(cart.id)

    @handle(AddToCart)
    def add_to_cart(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.get(command.cart_id)
        item = cart.add_item(
            product_id=command.product_id,
            variant_id=command.variant_id,
            quantity=command.quantity,
        )
        repo.add(cart)
        return str(item.id)

    @handle(RemoveFromCart)
    def remove_from_cart(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.get(command.cart_id)
        cart.remove_item(item_id=command.item_id)
        repo.add(cart)
