# SPDX-License-Identifier: Apache-2.0

"""
Middleware package for request processing.

This package contains the gateway principal extraction and the error
handlers that render workflow exceptions as problem documents.
"""
