"""Menu item CRUD routes."""

import logging

from fastapi import APIRouter, Request, status

from tableside.core.errors import MenuItemNotFound
from tableside.core.rate_limit import limiter
from tableside.core.responses import list_response
from tableside.core.tenancy import CurrentTenant, RequireManager, TenantContext
from tableside.db.session import DbSession
from tableside.models.menu import MenuItem
from tableside.schemas.menu import MenuItemCreate, MenuItemResponse, MenuItemUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_item(db: DbSession, ctx: TenantContext, item_id: int) -> MenuItem:
    item = (
        db.query(MenuItem)
        .filter(MenuItem.id == item_id, MenuItem.tenant_id == ctx.tenant_id)
        .first()
    )
    if item is None:
        raise MenuItemNotFound(item_id)
    return item


def _item_json(item: MenuItem) -> dict:
    return MenuItemResponse.model_validate(item).model_dump(mode="json")


@router.get("/items")
@limiter.limit("120/minute")
async def list_menu_items(request: Request, db: DbSession, ctx: CurrentTenant):
    items = (
        db.query(MenuItem)
        .filter(MenuItem.tenant_id == ctx.tenant_id)
        .order_by(MenuItem.category, MenuItem.name)
        .all()
    )
    return list_response([_item_json(i) for i in items])


@router.post("/items", status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
async def create_menu_item(request: Request, body: MenuItemCreate, db: DbSession, ctx: RequireManager):
    item = MenuItem(tenant_id=ctx.tenant_id, **body.model_dump())
    db.add(item)
    db.commit()
    db.refresh(item)
    logger.info(f"Menu item {item.id} '{item.name}' created for tenant {ctx.tenant_id}")
    return _item_json(item)


@router.get("/items/{item_id}")
@limiter.limit("120/minute")
async def get_menu_item(request: Request, item_id: int, db: DbSession, ctx: CurrentTenant):
    return _item_json(_get_item(db, ctx, item_id))


@router.put("/items/{item_id}")
@limiter.limit("30/minute")
async def update_menu_item(
    request: Request,
    item_id: int,
    body: MenuItemUpdate,
    db: DbSession,
    ctx: RequireManager,
):
    """Update a menu item. Items already on drafts or orders keep their snapshot prices."""
    item = _get_item(db, ctx, item_id)
    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(item, field, value)
    db.commit()
    db.refresh(item)
    return _item_json(item)


@router.delete("/items/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("30/minute")
async def delete_menu_item(request: Request, item_id: int, db: DbSession, ctx: RequireManager):
    item = _get_item(db, ctx, item_id)
    db.delete(item)
    db.commit()
    logger.info(f"Menu item {item_id} deleted for tenant {ctx.tenant_id}")
