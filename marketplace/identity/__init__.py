"""
Identity service for the marketplace.

This module provides registration and authentication services:
- Member and tasker registration
- Login by username or email
- JWT token issuance and validation
"""
