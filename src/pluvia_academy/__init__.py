"""Pluvia Academy attendance backend.

Feature packages (meetings, attendance, punishment, materials, ...) each carry
a model, a repository interface, its MySQL implementation and a service, with a
thin Flask controller on top.
"""
