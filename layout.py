# layout.py
from collections import namedtuple

# Windows narrower than this get the tabbed compact layout
COMPACT_BREAKPOINT = 768

Layout = namedtuple("Layout", [
    "name",
    "side_by_side",        # products and cart shown next to each other
    "show_cart_on_add",    # switch to the cart tab after adding a product
    "product_columns",     # columns in the product result list
    "cart_columns",        # columns in the cart list
    "geometry",
])

COMPACT = Layout(
    name="compact",
    side_by_side=False,
    show_cart_on_add=True,
    product_columns=("Product", "Price"),
    cart_columns=("Product", "Qty", "Line Total"),
    geometry="480x800",
)

WIDE = Layout(
    name="wide",
    side_by_side=True,
    show_cart_on_add=False,
    product_columns=("Barcode", "Product", "Price", "Stock", "Badges"),
    cart_columns=("Product", "Qty", "Price", "Line Total"),
    geometry="1200x768",
)

LAYOUTS = {layout.name: layout for layout in (COMPACT, WIDE)}


def layout_for_width(width: int) -> Layout:
    return COMPACT if width < COMPACT_BREAKPOINT else WIDE


def get_layout(name=None, width=None) -> Layout:
    """Resolve a layout by config name ('compact', 'wide', 'auto') or window width."""
    if name and name != "auto":
        if name not in LAYOUTS:
            raise ValueError(f"Unknown layout: {name}")
        return LAYOUTS[name]
    if width is None:
        return WIDE
    return layout_for_width(width)
