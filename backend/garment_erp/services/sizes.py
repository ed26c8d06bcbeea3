"""Garment size ordering."""

from typing import Iterable, Mapping, TypeVar

T = TypeVar("T")

LETTER_SIZES = ["XS", "S", "M", "L", "XL", "2XL", "3XL", "4XL", "5XL"]
SIZE_ALIASES = {"XXL": "2XL", "XXXL": "3XL"}
NUMERIC_SIZES = [str(n) for n in range(20, 51)]
KIDS_SIZES = [
    "0-2 Yrs", "2-3 Yrs", "3-4 Yrs", "4-5 Yrs", "5-6 Yrs", "6-7 Yrs",
    "7-8 Yrs", "8-9 Yrs", "9-10 Yrs", "10-11 Yrs", "11-12 Yrs",
    "12-13 Yrs", "13-14 Yrs", "14-15 Yrs", "15-16 Yrs",
]

SIZE_ORDER = LETTER_SIZES + NUMERIC_SIZES + KIDS_SIZES
_SIZE_RANK = {size.upper(): rank for rank, size in enumerate(SIZE_ORDER)}


def size_sort_key(size_name: str) -> tuple:
    """Known sizes by garment order, then anything else alphabetically."""
    label = size_name.strip().upper()
    label = SIZE_ALIASES.get(label, label)
    rank = _SIZE_RANK.get(label)
    if rank is None:
        return (1, len(SIZE_ORDER), label)
    return (0, rank, label)


def sort_sizes(sizes: Iterable[str]) -> list[str]:
    return sorted(sizes, key=size_sort_key)


def sorted_by_size(mapping: Mapping[str, T]) -> list[tuple[str, T]]:
    """Items of a size-keyed mapping in garment size order."""
    return [(size, mapping[size]) for size in sort_sizes(mapping)]
