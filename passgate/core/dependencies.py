from concurrent.futures import ThreadPoolExecutor

from fastapi import Depends, Request

from .container import ApplicationContainer


def get_container(request: Request) -> ApplicationContainer:
    container = getattr(request.app.state, "container", None)
    if not container:
        raise RuntimeError("Application container not initialised.")
    return container


def get_clock(container: ApplicationContainer = Depends(get_container)):
    return container.clock


def get_token_signer(container: ApplicationContainer = Depends(get_container)):
    return container.token_signer


def get_session_service(container: ApplicationContainer = Depends(get_container)):
    return container.session_service


def get_credential_executor(
    container: ApplicationContainer = Depends(get_container),
) -> ThreadPoolExecutor:
    return container.credential_executor
