"""
Services module for business logic.

- persistence/: local mirror, remote store, gateway
- state: AppState, the single owned authority over all collections
- domain/: order lifecycle, tables, sales, inventory, back office
- sync/: reconciliation loop
- auth/: login, session, capability checks
- collaborators: interfaces of external services (parser, images, printer)

Usage:
    from pos_api.services.persistence import build_gateway
    from pos_api.services.state import AppState
    from pos_api.services.domain import POSService

    state = AppState(build_gateway())
    pos = POSService(state)
"""
