"""
api package: HTTP routers for the resource control plane.

- resources: POST/GET/PUT/DELETE on /resources
- health: GET /health aggregated over every registered vendor provider
"""
