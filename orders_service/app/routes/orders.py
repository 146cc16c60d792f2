from typing import Dict, Iterable, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError

from config import DEFAULT_BATCH_FETCH_SIZE
from exceptions import MissingAssociationError
from logger import logger
from models import OrderStatus
from repositories import (
    OrderQueryRepository,
    OrderRepository,
    OrderSearch,
    get_order_query_repository,
    get_order_repository,
)
from schemas import OrderDto, OrderEntity, OrderFlatDto, OrderItemQueryDto, OrderQueryDto

# Order -> Member, Order -> Delivery (xToOne) plus Order -> OrderItem -> Item (xToMany)
router = APIRouter(prefix="/api", tags=["Orders"])


def group_order_flats(flats: Iterable[OrderFlatDto]) -> List[OrderQueryDto]:
    """Fold flat order x item rows back into one OrderQueryDto per order.

    Orders keep the order of their first row. A row without an order item
    (outer join of an order that has none) only contributes the order.
    """
    grouped: Dict[int, OrderQueryDto] = {}
    for flat in flats:
        order = grouped.get(flat.order_id)
        if order is None:
            order = grouped[flat.order_id] = OrderQueryDto(
                order_id=flat.order_id,
                name=flat.name,
                order_date=flat.order_date,
                order_status=flat.order_status,
                address=flat.address,
            )
        if flat.order_item_id is None:
            continue
        if flat.item_name is None:
            raise MissingAssociationError(flat.order_id, "item")
        order.order_items.append(
            OrderItemQueryDto(
                order_id=flat.order_id,
                item_name=flat.item_name,
                order_price=flat.order_price,
                count=flat.count,
            )
        )
    return list(grouped.values())


def _missing_record(e: MissingAssociationError) -> HTTPException:
    logger.error(f"Order references a missing record: {e}", extra={"order_id": e.order_id, "association": e.association})
    return HTTPException(status_code=500, detail=str(e))


def _database_error(version: str, e: SQLAlchemyError) -> HTTPException:
    logger.error(f"Database error while listing orders {version}: {e}")
    return HTTPException(status_code=500, detail="Database error while listing orders")


@router.get("/v1/orders", response_model=List[OrderEntity])
async def orders_v1(
    member_name: Optional[str] = Query(None, alias="memberName"),
    order_status: Optional[OrderStatus] = Query(None, alias="orderStatus"),
    repository: OrderRepository = Depends(get_order_repository),
):
    """Entities returned as is, every association initialized by hand first."""
    try:
        orders = await repository.find_all_by_string(OrderSearch(member_name, order_status))
        for order in orders:
            await order.awaitable_attrs.member
            await order.awaitable_attrs.delivery
            for order_item in await order.awaitable_attrs.order_items:
                await order_item.awaitable_attrs.item
        logger.info("Orders v1 (entities)", extra={"orders_count": len(orders)})
        return [OrderEntity.model_validate(order) for order in orders]
    except SQLAlchemyError as e:
        raise _database_error("v1", e)


@router.get("/v2/orders", response_model=List[OrderDto])
async def orders_v2(
    member_name: Optional[str] = Query(None, alias="memberName"),
    order_status: Optional[OrderStatus] = Query(None, alias="orderStatus"),
    repository: OrderRepository = Depends(get_order_repository),
):
    """Entity to DTO, items converted to DTOs too; each association loads lazily."""
    try:
        orders = await repository.find_all_by_string(OrderSearch(member_name, order_status))
        result = [await OrderDto.from_order(order) for order in orders]
        logger.info("Orders v2 (lazy DTO mapping)", extra={"orders_count": len(result)})
        return result
    except MissingAssociationError as e:
        raise _missing_record(e)
    except SQLAlchemyError as e:
        raise _database_error("v2", e)


@router.get("/v3/orders", response_model=List[OrderDto])
async def orders_v3(repository: OrderRepository = Depends(get_order_repository)):
    """Collection fetch join in one query; duplicated order rows collapsed, no paging."""
    try:
        orders = await repository.find_all_with_item()
        result = [await OrderDto.from_order(order) for order in orders]
        logger.info("Orders v3 (collection fetch join)", extra={"orders_count": len(result)})
        return result
    except MissingAssociationError as e:
        raise _missing_record(e)
    except SQLAlchemyError as e:
        raise _database_error("v3", e)


@router.get("/v3.1/orders", response_model=List[OrderDto])
async def orders_v3_page(
    offset: int = Query(0, ge=0),
    limit: int = Query(100, ge=1),
    repository: OrderRepository = Depends(get_order_repository),
):
    """To-one fetch join with paging; the items are batch loaded per page."""
    try:
        orders = await repository.find_all_with_member_delivery(offset, limit)
        await repository.load_order_items(orders, DEFAULT_BATCH_FETCH_SIZE)
        result = [await OrderDto.from_order(order) for order in orders]
        logger.info(
            "Orders v3.1 (fetch join + batch loading)",
            extra={"orders_count": len(result), "offset": offset, "limit": limit, "batch_size": DEFAULT_BATCH_FETCH_SIZE},
        )
        return result
    except MissingAssociationError as e:
        raise _missing_record(e)
    except SQLAlchemyError as e:
        raise _database_error("v3.1", e)


@router.get("/v4/orders", response_model=List[OrderQueryDto])
async def orders_v4(repository: OrderQueryRepository = Depends(get_order_query_repository)):
    """DTO query for the orders, then one item query per order."""
    try:
        result = await repository.find_order_query_dtos()
        logger.info("Orders v4 (DTO query, items per order)", extra={"orders_count": len(result)})
        return result
    except MissingAssociationError as e:
        raise _missing_record(e)
    except SQLAlchemyError as e:
        raise _database_error("v4", e)


@router.get("/v5/orders", response_model=List[OrderQueryDto])
async def orders_v5(repository: OrderQueryRepository = Depends(get_order_query_repository)):
    """DTO query for the orders, then every item in one IN query."""
    try:
        result = await repository.find_all_by_dto_optimization()
        logger.info("Orders v5 (DTO query, items in one query)", extra={"orders_count": len(result)})
        return result
    except MissingAssociationError as e:
        raise _missing_record(e)
    except SQLAlchemyError as e:
        raise _database_error("v5", e)


@router.get("/v6/orders", response_model=List[OrderQueryDto])
async def orders_v6(repository: OrderQueryRepository = Depends(get_order_query_repository)):
    """One flat query, grouped in memory. Not pageable."""
    try:
        flats = await repository.find_all_by_dto_flat()
        result = group_order_flats(flats)
        logger.info("Orders v6 (flat query)", extra={"rows_count": len(flats), "orders_count": len(result)})
        return result
    except MissingAssociationError as e:
        raise _missing_record(e)
    except SQLAlchemyError as e:
        raise _database_error("v6", e)
