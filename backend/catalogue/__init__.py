"""
Product catalogue backend.

Extracts product data from images with a hosted multimodal model and stores
it as vendors, brands, collections, products, colors, sizes and attributes.
"""
