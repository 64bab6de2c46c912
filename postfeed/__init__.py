"""
Blog/feed backend package.

Serves signup, login, post CRUD and status updates over REST and GraphQL,
persists to an in-memory, SQL or MongoDB store and broadcasts post changes
to WebSocket clients.
"""
