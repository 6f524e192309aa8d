# Services package.
#
# Each module exposes a focused set of async functions that encapsulate
# business logic for a single domain aggregate:
#
#   article_service  : Article lifecycle, publish state, list/detail/SEO projections
#   category_service : Category create/list/lookup/delete
#   user_service     : User lifecycle and credential handling
#
# All service functions accept a RecordStore as their first argument and
# return an Envelope.  The router layer binds the store to a request-scoped
# session and controls the transaction boundary via the ``get_db``
# dependency.
