#!/usr/bin/env python3
"""
Seed a demo marketplace.

Creates:
1. Two sellers, each with a small catalog of products and variants
2. Two buyers

Prints a signed access token for every account so the API can be exercised
locally (send it as the authToken cookie or a bearer header).
"""

import asyncio
import os
import sys
from decimal import Decimal

# Add project root to path
project_root = os.path.dirname(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
)
sys.path.insert(0, project_root)

from libs.auth.dependencies import issue_token
from libs.auth.models import Role
from libs.db.config import AsyncSessionLocal
from services.marketplace_service.models import Buyer, Product, ProductVariant, Seller
from sqlalchemy.future import select

SELLERS = [
    {
        "name": "Ada Okafor",
        "email": "ada@threads.example.com",
        "store_name": "Threads by Ada",
        "products": [
            {
                "name": "Classic Cotton Tee",
                "slug": "classic-cotton-tee",
                "description": "Heavyweight cotton t-shirt.",
                "variants": [
                    {"size": "M", "color": "Black", "price": "20.00", "stock": 25},
                    {"size": "L", "color": "Black", "price": "20.00", "stock": 15},
                    {"size": "M", "color": "White", "price": "20.00", "discounted_price": "16.00", "stock": 10},
                ],
            },
            {
                "name": "Everyday Hoodie",
                "slug": "everyday-hoodie",
                "description": "Fleece-lined pullover hoodie.",
                "variants": [
                    {"size": "L", "color": "Grey", "price": "55.00", "stock": 8},
                ],
            },
        ],
    },
    {
        "name": "Bode Adeyemi",
        "email": "bode@kicks.example.com",
        "store_name": "Kicks Corner",
        "products": [
            {
                "name": "Canvas Sneaker",
                "slug": "canvas-sneaker",
                "description": "Low-top canvas sneaker.",
                "variants": [
                    {"size": "42", "color": "Red", "price": "45.00", "stock": 12},
                    {"size": "43", "color": "Red", "price": "45.00", "stock": 0},
                ],
            },
        ],
    },
]

BUYERS = [
    {"name": "Chioma Eze", "email": "chioma@example.com"},
    {"name": "Tunde Bakare", "email": "tunde@example.com"},
]


async def seed_marketplace():
    """Create demo sellers, products and buyers, skipping anything that exists."""
    tokens = []

    async with AsyncSessionLocal() as session:
        async with session.begin():
            for seller_data in SELLERS:
                result = await session.execute(
                    select(Seller).where(Seller.email == seller_data["email"])
                )
                seller = result.scalar_one_or_none()
                if seller:
                    print(f"  Seller '{seller_data['email']}' already exists, skipping...")
                    tokens.append((seller.email, issue_token(str(seller.id), Role.SELLER)))
                    continue

                seller = Seller(
                    name=seller_data["name"],
                    email=seller_data["email"],
                    store_name=seller_data["store_name"],
                )
                for product_data in seller_data["products"]:
                    variants = [
                        ProductVariant(
                            size=variant["size"],
                            color=variant["color"],
                            price=Decimal(variant["price"]),
                            discounted_price=(
                                Decimal(variant["discounted_price"])
                                if variant.get("discounted_price")
                                else None
                            ),
                            stock=variant["stock"],
                        )
                        for variant in product_data["variants"]
                    ]
                    seller.products.append(
                        Product(
                            name=product_data["name"],
                            slug=product_data["slug"],
                            description=product_data["description"],
                            count_in_stock=sum(variant.stock for variant in variants),
                            variants=variants,
                        )
                    )
                session.add(seller)
                await session.flush()
                tokens.append((seller.email, issue_token(str(seller.id), Role.SELLER)))
                print(
                    f"  Created seller: {seller.store_name} "
                    f"({len(seller_data['products'])} products)"
                )

            for buyer_data in BUYERS:
                result = await session.execute(
                    select(Buyer).where(Buyer.email == buyer_data["email"])
                )
                buyer = result.scalar_one_or_none()
                if buyer:
                    print(f"  Buyer '{buyer_data['email']}' already exists, skipping...")
                else:
                    buyer = Buyer(**buyer_data)
                    session.add(buyer)
                    await session.flush()
                    print(f"  Created buyer: {buyer.email}")
                tokens.append((buyer.email, issue_token(str(buyer.id), Role.BUYER)))

    print("\n✓ Marketplace seeded successfully!\n")
    print("Access tokens (valid for 7 days):")
    for email, token in tokens:
        print(f"  {email}: {token}")


if __name__ == "__main__":
    print("Seeding demo marketplace...")
    asyncio.run(seed_marketplace())
