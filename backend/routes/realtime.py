"""
Realtime endpoints — change notifications over WebSocket.

    ws://host/realtime/orders?token=<jwt>
    ws://host/realtime/inventory?token=<jwt>&storeId=<store id>

One change-feed subscription per connection, scoped to the caller: a
customer hears about their own orders, a store owner about their store's
orders. The inventory channel follows one store's shelf; a store owner may
omit storeId to follow their own. Each message tells the client to re-fetch;
the subscription is torn down when the socket closes.

A slow client gets the most recent REALTIME_QUEUE_SIZE events; older ones
are dropped.
"""

import asyncio
import logging
from typing import Optional, Union

from fastapi import APIRouter, HTTPException, Query, WebSocket, WebSocketDisconnect, status

from domain.constants import TABLE_INVENTORY, TABLE_ORDERS
from domain.errors import DomainError
from domain.records import ChangeEvent
from middleware.auth import get_authenticated_user
from services.backends import DataBackend
from utils.validators import validate_identifier
from views.session import CustomerSession, StoreOwnerSession, open_session

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/realtime", tags=["realtime"])

REALTIME_QUEUE_SIZE = 100


async def _open(
    websocket: WebSocket,
    token: Optional[str],
    user_id: Optional[str],
) -> Union[CustomerSession, StoreOwnerSession]:
    context = getattr(websocket.app.state, "context", None)
    caller = await get_authenticated_user(
        authorization=f"Bearer {token}" if token else None,
        x_user_id=user_id,
    )
    if not caller or context is None:
        raise HTTPException(status_code=401, detail="Authentication required.")
    return await open_session(context, caller)


async def _refuse(websocket: WebSocket, e: Exception) -> None:
    logger.info(f"Realtime connection refused: {getattr(e, 'detail', e)}")
    await websocket.close(code=status.WS_1008_POLICY_VIOLATION)


def _bounded_put(queue: asyncio.Queue):
    def put(event: ChangeEvent) -> None:
        if queue.full():
            # Keep the freshest events
            queue.get_nowait()
        queue.put_nowait(event)
    return put


async def _stream(websocket: WebSocket, backend: DataBackend, table: str, column: str, value: str) -> None:
    """Forward one filtered change-feed subscription until the client goes away."""
    await websocket.accept()
    queue: asyncio.Queue[ChangeEvent] = asyncio.Queue(maxsize=REALTIME_QUEUE_SIZE)
    subscription = backend.subscribe(table, column, value, _bounded_put(queue))
    logger.info(f"Realtime subscriber connected: {table}.{column}={value}")

    async def _forward():
        while True:
            event = await queue.get()
            await websocket.send_json({"type": "change", **event.model_dump(mode="json")})

    forwarder = asyncio.create_task(_forward())
    try:
        await websocket.send_json({"type": "subscribed", "table": table, "filter": {column: value}})
        while True:
            # Client messages are ignored; receiving detects the disconnect
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        subscription.unsubscribe()
        forwarder.cancel()
        try:
            await forwarder
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.debug(f"Realtime forwarder ended with {e!r}")
        logger.info(f"Realtime subscriber disconnected: {table}.{column}={value}")


@router.websocket("/orders")
async def order_changes(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None, alias="userId"),
):
    try:
        session = await _open(websocket, token, user_id)
    except (HTTPException, DomainError) as e:
        await _refuse(websocket, e)
        return

    if isinstance(session, StoreOwnerSession):
        column, value = "store_id", session.store.id
    else:
        column, value = "customer_id", session.profile.id
    await _stream(websocket, session.backend, TABLE_ORDERS, column, value)


@router.websocket("/inventory")
async def inventory_changes(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None, alias="userId"),
    store_id: Optional[str] = Query(None, alias="storeId"),
):
    try:
        session = await _open(websocket, token, user_id)
        if store_id is None and isinstance(session, StoreOwnerSession):
            store_id = session.store.id
        store_id = validate_identifier(store_id or "", "storeId")
    except (HTTPException, DomainError) as e:
        await _refuse(websocket, e)
        return

    await _stream(websocket, session.backend, TABLE_INVENTORY, "store_id", store_id)
