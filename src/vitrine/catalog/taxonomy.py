"""Fixed vocabularies for catalog entries.

Learn: Category and store values come from the storefront's sidebar and
store badges, so they are a closed set. Keeping them here (instead of a
database table) means validation, query parsing, and the frontend all
agree on one list.
"""

# Query wildcard: accepted in filters, never stored
ALL = "todas"

CATEGORIES = frozenset({
    "eletronicos",
    "casa",
    "moda",
    "beleza",
    "esportes",
    "brinquedos",
    "livros",
    "games",
    "informatica",
    "outros",
})

STORES = frozenset({
    "amazon",
    "mercadolivre",
    "shopee",
    "magalu",
    "aliexpress",
    "americanas",
    "outros",
})
