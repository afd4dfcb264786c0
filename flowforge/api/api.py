from flowforge.api.commands import (
    clients, dashboard, invoices, projects, settings, system, time_entries
)
from flowforge.api.router import CommandDispatcher, CommandRouter

api_router = CommandRouter()

api_router.include_router(system.router)

# Store commands
api_router.include_router(clients.router)
api_router.include_router(projects.router)
api_router.include_router(time_entries.router)
api_router.include_router(invoices.router)
api_router.include_router(settings.router)
api_router.include_router(dashboard.router)


def create_dispatcher(store) -> CommandDispatcher:
    return CommandDispatcher(store, api_router)
