"""
storefront — order placement and bulk CSV product import.

    from storefront import Settings, build_services, configure_logging
    from storefront import ordering as O, importing as I

    configure_logging("INFO")
    services = await build_services(Settings.from_env())

    async with services.running():
        match await services.orders.place_order(user_id):
            case Ok(order):
                ...
            case Error(O.InsufficientStockError() as e):
                ...

Packages:

    db         tables, engine, session factory
    blob       file storage protocol (memory, local directory, function-built)
    ordering   cart, inventory ledger, order coordinator
    importing  CSV validation, import jobs, worker queue, reaper
    http       FastAPI app
"""

from storefront._types import (
    Result,
    Ok,
    Error,
    LazyCoroResult,
    Clock,
    utcnow,
    new_id,
)
from storefront._config import Settings, ENV_PREFIX
from storefront._logging import configure_logging, bind_context, clear_context
from storefront._services import Services, build_services

__version__ = "0.1.0"

__all__ = (
    "Result",
    "Ok",
    "Error",
    "LazyCoroResult",
    "Clock",
    "utcnow",
    "new_id",
    "Settings",
    "ENV_PREFIX",
    "configure_logging",
    "bind_context",
    "clear_context",
    "Services",
    "build_services",
    "__version__",
)
