"""Offline product catalog served when the hosted database is unreachable.

Prices are kept as display text, like the live `products.price` column.
"""

MOCK_CATALOG = [
    {
        "product_id": "mock-1",
        "name": "Red Apples",
        "price": "$2.99",
        "supermarket": "Fresh Market",
        "quantity": "Per lb",
        "promotion_description": "Fresh Produce",
    },
    {
        "product_id": "mock-2",
        "name": "Apple Juice",
        "price": "$3.49",
        "supermarket": "SuperMart",
        "quantity": "64oz",
        "promotion_description": "Beverages",
    },
    {
        "product_id": "mock-3",
        "name": "Apple Pie",
        "price": "$8.99",
        "supermarket": "Corner Store",
        "quantity": "9inch",
        "promotion_description": "Bakery Special",
    },
    {
        "product_id": "mock-4",
        "name": "Green Apples",
        "price": "$3.25",
        "supermarket": "Fresh Market",
        "quantity": "Per lb",
        "promotion_description": "Fresh Produce",
    },
    {
        "product_id": "mock-5",
        "name": "Organic Bananas",
        "price": "$2.99",
        "supermarket": "Fresh Market",
        "quantity": "Per lb",
        "promotion_description": "Organic Special",
    },
    {
        "product_id": "mock-6",
        "name": "Whole Milk",
        "price": "$3.49",
        "supermarket": "SuperMart",
        "quantity": "1 Gallon",
        "promotion_description": "Dairy",
    },
    {
        "product_id": "mock-7",
        "name": "Orange Juice",
        "price": "$4.29",
        "supermarket": "Corner Store",
        "quantity": "64oz",
        "promotion_description": "Fresh Squeezed",
    },
    {
        "product_id": "mock-8",
        "name": "Pasta Sauce",
        "price": "$2.49",
        "supermarket": "SuperMart",
        "quantity": "24oz",
        "promotion_description": "Italian Style",
    },
    {
        "product_id": "mock-9",
        "name": "Whole Wheat Bread",
        "price": "$2.79",
        "supermarket": "Corner Store",
        "quantity": "20oz loaf",
        "promotion_description": "Bakery",
    },
    {
        "product_id": "mock-10",
        "name": "Bananas",
        "price": "$0.59",
        "supermarket": "SuperMart",
        "quantity": "Per lb",
        "promotion_description": None,
    },
]
