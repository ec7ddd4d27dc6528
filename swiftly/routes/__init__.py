# Routes package init
"""
Swiftly: Core Routes Package
=============================

What:  Kernel-provided endpoints, registered like any application route.

Route Inventory:
    - health.py:  GET /core/health/check   (liveness)
                  GET /core/health/info    (runtime summary)
                  GET /core/debug/routes   (route table, development only)

Application routes live in the application, not here.
"""
