"""Storefront REST API: products, categories, users, orders, wishlists, images and search."""
