"""
Reusable schemas and rule strings shared by most applications.
"""

from swiftly.validation.schema import Schema, SchemaBuilder

# Rule-string pool for modules that still declare legacy rules
COMMON_RULES = {
    "id": "ID,number,1,null,null",
    "page": "Page,number,1,9999,null",
    "limit": "Page size,number,1,100,null",
    "keyword": "Keyword,string,1,50,null",
    "email": r"Email,string,5,100,^[^\s@]+@[^\s@]+\.[^\s@]+$",
    "phone": r"Phone,string,11,11,^1[3-9]\d{9}$",
    "url": "URL,string,5,500,^https?://.+",
    "ids": r"ID list,array,1,100,^\d+$,null",
}


def empty() -> Schema:
    return SchemaBuilder().build()


def record_id() -> Schema:
    return SchemaBuilder().number("id", int=True, positive=True).build()


def pagination() -> Schema:
    return (
        SchemaBuilder()
        .number("page", int=True, min=1, default=1)
        .number("limit", int=True, min=1, max=100, default=10)
        .build()
    )
