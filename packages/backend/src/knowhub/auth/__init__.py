"""Authentication.

Learn: This service never issues passwords or sessions itself — it
verifies the JWT access tokens the main API hands out. The token's
`team_id` claim is the authenticated session state that realtime
joins are checked against.
"""
