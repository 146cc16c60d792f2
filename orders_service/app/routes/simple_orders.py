from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.exc import SQLAlchemyError

from exceptions import MissingAssociationError
from logger import logger
from models import OrderStatus
from repositories import (
    OrderRepository,
    OrderSearch,
    OrderSimpleQueryRepository,
    get_order_repository,
    get_order_simple_query_repository,
)
from schemas import OrderSimpleQueryDto, SimpleOrderDto, SimpleOrderEntity

# xToOne only: Order -> Member, Order -> Delivery
router = APIRouter(prefix="/api", tags=["Simple orders"])


@router.get("/v1/simple-orders", response_model=List[SimpleOrderEntity])
async def orders_v1(
    member_name: Optional[str] = Query(None, alias="memberName"),
    order_status: Optional[OrderStatus] = Query(None, alias="orderStatus"),
    repository: OrderRepository = Depends(get_order_repository),
):
    """Entities returned as is.

    Member and delivery are initialized by hand before serialization; the
    still-lazy ``orderItems`` come out as null.
    """
    try:
        orders = await repository.find_all_by_string(OrderSearch(member_name, order_status))
        for order in orders:
            await order.awaitable_attrs.member
            await order.awaitable_attrs.delivery
        logger.info("Simple orders v1 (entities)", extra={"orders_count": len(orders)})
        return [SimpleOrderEntity.model_validate(order) for order in orders]
    except SQLAlchemyError as e:
        logger.error(f"Database error while listing simple orders v1: {e}")
        raise HTTPException(status_code=500, detail="Database error while listing orders")


@router.get("/v2/simple-orders", response_model=List[SimpleOrderDto])
async def orders_v2(
    member_name: Optional[str] = Query(None, alias="memberName"),
    order_status: Optional[OrderStatus] = Query(None, alias="orderStatus"),
    repository: OrderRepository = Depends(get_order_repository),
):
    """Entity to DTO; every order lazily loads its member and delivery (N+1)."""
    try:
        orders = await repository.find_all_by_string(OrderSearch(member_name, order_status))
        result = [await SimpleOrderDto.from_order(order) for order in orders]
        logger.info("Simple orders v2 (lazy DTO mapping)", extra={"orders_count": len(result)})
        return result
    except MissingAssociationError as e:
        logger.error(f"Order references a missing record: {e}", extra={"order_id": e.order_id})
        raise HTTPException(status_code=500, detail=str(e))
    except SQLAlchemyError as e:
        logger.error(f"Database error while listing simple orders v2: {e}")
        raise HTTPException(status_code=500, detail="Database error while listing orders")


@router.get("/v3/simple-orders", response_model=List[SimpleOrderDto])
async def orders_v3(repository: OrderRepository = Depends(get_order_repository)):
    """Member and delivery fetch joined, so the whole list is one query."""
    try:
        orders = await repository.find_all_with_member_delivery()
        result = [await SimpleOrderDto.from_order(order) for order in orders]
        logger.info("Simple orders v3 (fetch join)", extra={"orders_count": len(result)})
        return result
    except MissingAssociationError as e:
        logger.error(f"Order references a missing record: {e}", extra={"order_id": e.order_id})
        raise HTTPException(status_code=500, detail=str(e))
    except SQLAlchemyError as e:
        logger.error(f"Database error while listing simple orders v3: {e}")
        raise HTTPException(status_code=500, detail="Database error while listing orders")


@router.get("/v4/simple-orders", response_model=List[OrderSimpleQueryDto])
async def orders_v4(repository: OrderSimpleQueryRepository = Depends(get_order_simple_query_repository)):
    """DTO projected by the database, no entities materialized."""
    try:
        result = await repository.find_order_dtos()
        logger.info("Simple orders v4 (DTO query)", extra={"orders_count": len(result)})
        return result
    except MissingAssociationError as e:
        logger.error(f"Order references a missing record: {e}", extra={"order_id": e.order_id})
        raise HTTPException(status_code=500, detail=str(e))
    except SQLAlchemyError as e:
        logger.error(f"Database error while listing simple orders v4: {e}")
        raise HTTPException(status_code=500, detail="Database error while listing orders")
