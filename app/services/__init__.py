"""
Services module for analytics and lifecycle logic.

This module contains the aggregation, comparison, ranking and lifecycle
services, keeping them separate from API endpoints and database models.
"""
