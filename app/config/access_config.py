"""
Access Hierarchy Configuration
This config defines the storefront resource hierarchy and the access levels
that apply to each resource kind.
Used by the access store to walk ancestor chains and by the resolver to cap levels.
"""

# Access levels, lowest first. A level implies every level before it.
ACCESS_LEVELS = ["view", "edit", "manage"]

# Levels that may be stored as explicit grants in collection_access
GRANTABLE_LEVELS = ["view", "edit"]

# Resource kinds and how each one links to its parent
HIERARCHY = {
    "collection": {
        "table": "collections",
        "parent_kind": None,
        "parent_column": None,
        "description": "Storefront collection (tenant root)"
    },
    "category": {
        "table": "categories",
        "parent_kind": "collection",
        "parent_column": "collection_id",
        "description": "Category within a collection"
    },
    "product": {
        "table": "products",
        "parent_kind": "category",
        "parent_column": "category_id",
        "description": "Product within a category"
    },
    "order": {
        "table": "orders",
        "parent_kind": "product",
        "parent_column": "product_id",
        "description": "Buyer order for a product"
    }
}

# Highest level a non-admin principal can ever hold on a resource kind.
# Order records carry buyer data: owners, grantees and buyers may only view them.
MAX_NON_ADMIN_LEVEL = {
    "order": "view"
}

# Kinds that can be browsed anonymously when the owning collection is visible
PUBLICLY_BROWSABLE_KINDS = ["collection", "category", "product"]


def level_rank(level: str) -> int:
    return ACCESS_LEVELS.index(level)


def ancestor_path(kind: str):
    """Return the kinds walked from `kind` up to the collection, inclusive."""
    path = [kind]
    while HIERARCHY[path[-1]]["parent_kind"] is not None:
        path.append(HIERARCHY[path[-1]]["parent_kind"])
    return path


# Generate access matrix
def get_access_matrix():
    """
    Returns a dictionary describing every resource kind and its reachable levels
    Format: {
        "resources": [
            {"kind": "order", "table": "orders", "ancestors": ["product", "category", "collection"],
             "levels": ["view", "edit", "manage"], "max_non_admin_level": "view"},
            ...
        ],
        "permissions": ["collection:view", "collection:edit", ...]
    }
    """
    resources = []
    permissions = []

    for kind, config in HIERARCHY.items():
        cap = MAX_NON_ADMIN_LEVEL.get(kind, ACCESS_LEVELS[-1])
        resources.append({
            "kind": kind,
            "table": config["table"],
            "description": config["description"],
            "ancestors": ancestor_path(kind)[1:],
            "levels": list(ACCESS_LEVELS),
            "max_non_admin_level": cap,
            "publicly_browsable": kind in PUBLICLY_BROWSABLE_KINDS
        })
        for level in ACCESS_LEVELS:
            permissions.append(f"{kind}:{level}")

    return {
        "resources": resources,
        "permissions": permissions
    }


ACCESS_MATRIX = get_access_matrix()
