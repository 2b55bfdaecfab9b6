"""
Client and pool endpoints.

Pools are nested under their client. Creating or deleting a pool also
keeps the client's list of pool ids in step.
"""

import logging

from fastapi import APIRouter, Response, status

from ...core.pools.chemistry import classify_pool
from ..dependencies import AuthenticatedUser, RecordRepositoryDep, SynchronizerDep, UserIdDep
from ..schemas import ClientRequest, ClientResponse, PoolRequest, PoolResponse

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=list[ClientResponse],
    summary="List clients",
)
async def list_clients(
    api_key: AuthenticatedUser,
    user_id: UserIdDep,
    repository: RecordRepositoryDep,
) -> list[ClientResponse]:
    return [ClientResponse.from_client(c) for c in repository.list_clients(user_id)]


@router.post(
    "",
    response_model=ClientResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a client",
)
async def create_client(
    request: ClientRequest,
    api_key: AuthenticatedUser,
    synchronizer: SynchronizerDep,
) -> ClientResponse:
    client = synchronizer.save_client(request.to_client())
    return ClientResponse.from_client(client)


@router.get(
    "/{client_id}",
    response_model=ClientResponse,
    summary="Get a client",
)
async def get_client(
    client_id: str,
    api_key: AuthenticatedUser,
    user_id: UserIdDep,
    repository: RecordRepositoryDep,
) -> ClientResponse:
    return ClientResponse.from_client(repository.get_client(user_id, client_id))


@router.put(
    "/{client_id}",
    response_model=ClientResponse,
    summary="Update a client",
    description="Overwrites the client's fields. The pool list is left alone.",
)
async def update_client(
    client_id: str,
    request: ClientRequest,
    api_key: AuthenticatedUser,
    synchronizer: SynchronizerDep,
) -> ClientResponse:
    client = synchronizer.save_client(request.to_client(client_id))
    return ClientResponse.from_client(client)


# ---------------------------------------------------------------------------
# Pools
# ---------------------------------------------------------------------------

@router.get(
    "/{client_id}/pools",
    response_model=list[PoolResponse],
    summary="List a client's pools",
)
async def list_pools(
    client_id: str,
    api_key: AuthenticatedUser,
    user_id: UserIdDep,
    repository: RecordRepositoryDep,
) -> list[PoolResponse]:
    repository.get_client(user_id, client_id)
    return [PoolResponse.from_pool(p) for p in repository.list_pools(user_id, client_id)]


@router.post(
    "/{client_id}/pools",
    response_model=PoolResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a pool to a client",
    description="Volume is computed from the geometry unless volumeMode is manual.",
)
async def create_pool(
    client_id: str,
    request: PoolRequest,
    api_key: AuthenticatedUser,
    synchronizer: SynchronizerDep,
) -> PoolResponse:
    pool = synchronizer.save_pool(request.to_pool(client_id))
    return PoolResponse.from_pool(pool)


@router.put(
    "/{client_id}/pools/{pool_id}",
    response_model=PoolResponse,
    summary="Update a pool",
)
async def update_pool(
    client_id: str,
    pool_id: str,
    request: PoolRequest,
    api_key: AuthenticatedUser,
    user_id: UserIdDep,
    repository: RecordRepositoryDep,
    synchronizer: SynchronizerDep,
) -> PoolResponse:
    repository.get_pool(user_id, client_id, pool_id)
    pool = synchronizer.save_pool(request.to_pool(client_id, pool_id))
    return PoolResponse.from_pool(pool)


@router.delete(
    "/{client_id}/pools/{pool_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a pool",
    description="Visits recorded against the pool are kept.",
)
async def delete_pool(
    client_id: str,
    pool_id: str,
    api_key: AuthenticatedUser,
    synchronizer: SynchronizerDep,
) -> Response:
    synchronizer.delete_pool(client_id, pool_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get(
    "/{client_id}/pools/{pool_id}/status",
    response_model=dict[str, str],
    summary="Chemical status of a pool",
    description="Severity band (good, warning, danger, neutral) per reading.",
)
async def pool_status(
    client_id: str,
    pool_id: str,
    api_key: AuthenticatedUser,
    user_id: UserIdDep,
    repository: RecordRepositoryDep,
) -> dict[str, str]:
    pool = repository.get_pool(user_id, client_id, pool_id)
    return {name: band.value for name, band in classify_pool(pool).items()}
