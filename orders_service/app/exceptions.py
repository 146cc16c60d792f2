class OrdersServiceError(Exception):
    """Base class for the errors raised by the orders service."""


class NotEnoughStockError(OrdersServiceError):
    def __init__(self, item_name: str, stock_quantity: int, requested: int):
        super().__init__(
            f"need more stock: item '{item_name}' has {stock_quantity}, requested {requested}"
        )
        self.item_name = item_name
        self.stock_quantity = stock_quantity
        self.requested = requested


class AlreadyDeliveredError(OrdersServiceError):
    def __init__(self, order_id: int):
        super().__init__(f"order {order_id} is already delivered and cannot be cancelled")
        self.order_id = order_id


class EntityNotFoundError(OrdersServiceError):
    def __init__(self, entity: str, entity_id: int):
        super().__init__(f"{entity} {entity_id} not found")
        self.entity = entity
        self.entity_id = entity_id


class MissingAssociationError(OrdersServiceError):
    """An order references a member, delivery or item that does not exist."""

    def __init__(self, order_id: int, association: str):
        super().__init__(f"order {order_id} has no {association}")
        self.order_id = order_id
        self.association = association
