"""Instruction sent to the hosted model along with every product image."""

EXTRACTION_PROMPT = """You are looking at a photo of a fashion product. Describe the product so that the rows of the database tables listed below can be filled in. Answer with ONE JSON object whose keys are the table names and whose values are arrays of objects, each object being a candidate row (or part of one) for that table.

Tables and fields:

- products (infer as much as the image allows)
  - name: a short descriptive product name
  - product_type: e.g. "Top", "Bottom", "Dress", "Shoe", "Bag"
  - category: e.g. "Clothing", "Footwear", "Accessories"
  - subcategory: e.g. "T-shirt", "Jeans", "Sandals", "Tote Bag"
  - gender: e.g. "Female", "Male", "Unisex", "Kids"
  - target_age_group: e.g. "Adult", "Teen", "Child", "Infant"
  - description: a brief description of the key features
  - tags: comma-separated search keywords
- brands (only when the brand is visible or recognizable)
  - name
- collections (only when the product clearly belongs to a known collection)
  - name
- colors (every visible color)
  - name: common color name, e.g. "Red", "Navy Blue", "Multicolor"
- sizes (only when size information is visible, e.g. on a label)
  - name: e.g. "S", "M", "US 6", "EU 38"
- attributes (notable characteristics)
  - name: the characteristic, e.g. "Neckline", "Material", "Pattern", "Closure Type", "Fit", "Occasion"
  - value: what you see, e.g. "V-Neck", "Cotton", "Striped", "Zipper", "Relaxed", "Casual"

Every object must carry a confidence_score between 0.00 and 1.00. Leave out anything you cannot identify, or give it a very low confidence_score. Use an empty array for a table with nothing to report.

Example answer:

{
  "products": [
    {"name": "Elegant Sleeveless Evening Gown", "confidence_score": 0.75},
    {"product_type": "Dress", "confidence_score": 0.98},
    {"category": "Clothing", "confidence_score": 0.99},
    {"subcategory": "Evening Dress", "confidence_score": 0.85},
    {"gender": "Female", "confidence_score": 0.97},
    {"target_age_group": "Adult", "confidence_score": 0.92},
    {"description": "Floor-length sleeveless gown with a sweetheart neckline and sequins.", "confidence_score": 0.70},
    {"tags": "evening gown, formal, sleeveless, sequin", "confidence_score": 0.80}
  ],
  "brands": [{"name": "Luxury Designs", "confidence_score": 0.55}],
  "collections": [],
  "colors": [
    {"name": "Silver", "confidence_score": 0.96},
    {"name": "Gray", "confidence_score": 0.88}
  ],
  "sizes": [{"name": "US 10", "confidence_score": 0.60}],
  "attributes": [
    {"name": "Neckline", "value": "Sweetheart", "confidence_score": 0.94},
    {"name": "Sleeve Length", "value": "Sleeveless", "confidence_score": 0.99},
    {"name": "Material", "value": "Polyester", "confidence_score": 0.80}
  ]
}

Reply with valid JSON only.
"""
