"""
Cleanups app - the request-lifecycle collaborator of the payments engine.

Only the narrow surface the engine consumes lives here: the CleanupRequest
record (cost, category, creator, running contributed total, performer) and
CleanupRequestService. Request CRUD, photos, participation and category
rules are owned elsewhere.

Usage:
    from cleanups.services import CleanupRequestService

    cleanup = CleanupRequestService.get_request(request_id)
    CleanupRequestService.increment_contributed(request_id, Decimal("10.00"))
    CleanupRequestService.mark_settled(request_id, performer_id)
"""
