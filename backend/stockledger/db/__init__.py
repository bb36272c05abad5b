"""Database package"""
