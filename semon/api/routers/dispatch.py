from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends

from semon.api.deps import get_header_token, get_identity_service, get_record_store
from semon.api.dispatcher import Dispatcher
from semon.api.responses import ApiResponse
from semon.domain.models import DispatchRequest
from semon.infra.store import RecordStore
from semon.services.identity_service import IdentityService

router = APIRouter()

Store = Annotated[RecordStore, Depends(get_record_store)]
Identity = Annotated[IdentityService, Depends(get_identity_service)]
HeaderToken = Annotated[str | None, Depends(get_header_token)]


def get_dispatcher(store: Store, identity: Identity) -> Dispatcher:
    return Dispatcher(store, identity)


DispatcherDep = Annotated[Dispatcher, Depends(get_dispatcher)]


@router.post("/dispatch", response_model=ApiResponse)
def dispatch(payload: DispatchRequest, dispatcher: DispatcherDep, header_token: HeaderToken) -> ApiResponse:
    return dispatcher.dispatch(payload.action, payload.data, payload.session_token or header_token)


@router.post("/{resource}/{action}", response_model=ApiResponse)
def dispatch_resource(
    resource: str,
    action: str,
    dispatcher: DispatcherDep,
    token: HeaderToken,
    data: Annotated[dict[str, Any] | None, Body()] = None,
) -> ApiResponse:
    return dispatcher.dispatch(f"{resource}.{action}", data, token)
