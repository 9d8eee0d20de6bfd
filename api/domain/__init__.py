# SPDX-License-Identifier: Apache-2.0

"""
Domain logic package for the rescue workflow engine.

This package contains pure business logic functions with no side effects:
transition tables, authorization checks, notification templates, domain
events and distance math. Everything here is testable without storage.
"""
