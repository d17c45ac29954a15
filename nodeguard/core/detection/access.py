from __future__ import annotations

from typing import Any, Hashable


class FieldAccess:
    """One way of addressing the fields of an object.

    Mappings and sequences expose fields as items, records (dataclasses,
    namespaces, plain class instances) as attributes. Wrappers pick a channel
    when they are created and route every read, write and delete through it.
    """

    name: str = "abstract"

    def get(self, target: Any, key: Hashable) -> Any:
        raise NotImplementedError

    def set(self, target: Any, key: Hashable, value: Any) -> None:
        raise NotImplementedError

    def delete(self, target: Any, key: Hashable) -> None:
        raise NotImplementedError

    def is_read_only(self, target: Any, key: Hashable) -> bool:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<FieldAccess {self.name}>"


class ItemAccess(FieldAccess):
    name = "item"

    def get(self, target: Any, key: Hashable) -> Any:
        return target[key]

    def set(self, target: Any, key: Hashable, value: Any) -> None:
        target[key] = value

    def delete(self, target: Any, key: Hashable) -> None:
        del target[key]

    def is_read_only(self, target: Any, key: Hashable) -> bool:
        # tuple, MappingProxyType and friends: every item is fixed.
        return getattr(type(target), "__setitem__", None) is None


class AttributeAccess(FieldAccess):
    name = "attribute"

    def get(self, target: Any, key: Hashable) -> Any:
        return getattr(target, key)

    def set(self, target: Any, key: Hashable, value: Any) -> None:
        setattr(target, key, value)

    def delete(self, target: Any, key: Hashable) -> None:
        delattr(target, key)

    def is_read_only(self, target: Any, key: Hashable) -> bool:
        cls = type(target)
        params = getattr(cls, "__dataclass_params__", None)
        if params is not None and params.frozen:
            return True

        for klass in cls.__mro__:
            attr = klass.__dict__.get(key)
            if attr is None:
                continue
            if isinstance(attr, property):
                return attr.fset is None
            break

        return False


ITEM_ACCESS = ItemAccess()
ATTRIBUTE_ACCESS = AttributeAccess()

