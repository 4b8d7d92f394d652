# frontend.py
"""
Storefront home page.

One HTML document composed of three sections: an intro banner, the category
menu and the product listing. The data comes from the same queries that
back `/api/categories` and `/api/products`.
"""
import html
from typing import List

from fastapi import APIRouter, Depends, Request
from fastapi.responses import HTMLResponse
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from storefront.db import get_db
from storefront.models import Category, Product

router = APIRouter(tags=["Frontend"])


def render_intro(project_name: str) -> str:
    return f"""
    <section class="intro">
        <h1>{html.escape(project_name)}</h1>
        <p>The best products, at the best prices. Browse our categories or search the catalog.</p>
        <a class="cta" href="#products">Shop now</a>
    </section>"""


def render_category_menu(categories: List[Category]) -> str:
    if not categories:
        return """
    <section class="categories"><h2>Browse Categories</h2><p class="empty">No categories yet.</p></section>"""
    links = "\n".join(
        f'            <li><a href="/api/categories/{category.id}/products">{html.escape(category.name)}</a></li>'
        for category in categories
    )
    return f"""
    <section class="categories">
        <h2>Browse Categories</h2>
        <ul>
{links}
        </ul>
    </section>"""


def render_products(products: List[Product]) -> str:
    if not products:
        return """
    <section class="products" id="products"><h2>Products</h2><p class="empty">No products available.</p></section>"""
    cards = []
    for product in products:
        href = f"/api/slugs/{product.slug}" if product.slug else f"/api/products/{product.id}"
        image = (
            f'<img src="/api/images/file/{html.escape(product.main_image)}" alt="{html.escape(product.name)}">'
            if product.main_image else ""
        )
        cards.append(
            f'            <li class="product">{image}<a href="{html.escape(href)}">{html.escape(product.name)}</a>'
            f' <span class="price">${product.price:.2f}</span></li>'
        )
    return f"""
    <section class="products" id="products">
        <h2>Products</h2>
        <ul>
{chr(10).join(cards)}
        </ul>
    </section>"""


@router.get("/", response_class=HTMLResponse, include_in_schema=False)
async def serve_home_page(request: Request, db: AsyncSession = Depends(get_db)):
    """Serves the composed storefront page."""
    categories = (await db.execute(select(Category).order_by(Category.name))).scalars().all()
    products = (await db.execute(select(Product).order_by(Product.id))).scalars().all()
    project_name = request.app.state.settings.PROJECT_NAME

    html_content = f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <title>{html.escape(project_name)}</title>
</head>
<body>
{render_intro(project_name)}
{render_category_menu(categories)}
{render_products(products)}
</body>
</html>
"""
    return HTMLResponse(content=html_content, status_code=200)
