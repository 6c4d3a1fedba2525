"""
Entitlement evaluation package.

Annotates templates with whether the calling user and organization are
entitled to the services each template requires, using one batched
console lookup and an optional pending access request lookup.
"""
