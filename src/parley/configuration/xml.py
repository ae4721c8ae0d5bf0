# SPDX-FileCopyrightText: 2020-present Dan Pascu <dan@aethereal.link>
#
# SPDX-License-Identifier: AGPL-3.0-or-later

"""
Declarative binding between XML documents and python objects.

Elements are described by XMLElement subclasses, with their child data
elements declared as descriptors:

    class Settings(XMLElement, name='settings', namespace=ns):
        servers = MultiDataElement(str, name='server')
        timeout = OptionalDataElement(int, adapter=PositiveIntegerAdapter, default=30)

Documents are validated against the RelaxNG schema of their namespace
before being parsed.
"""

from abc import ABC, abstractmethod
from math import inf
from os import PathLike
from pathlib import Path
from typing import Any, ClassVar, Protocol, Self, overload

from lxml import etree

__all__ = (  # noqa: RUF022
    'ConfigurationError',
    'Namespace',
    'RelaxNGValidator',
    'XMLElement',

    'DataAdapter',
    'StringAdapter',
    'BooleanAdapter',
    'IntegerAdapter',
    'PositiveIntegerAdapter',

    'DataElement',
    'OptionalDataElement',
    'MultiDataElement',
)


# noinspection PyProtectedMember
type ETreeElement = etree._Element  # noqa: SLF001


class ConfigurationError(ValueError):
    """Raised when a configuration document is not well formed or not valid."""


class Namespace(str):
    __slots__ = 'prefix', 'schema'

    prefix: str | None
    schema: str | None

    def __new__(cls, namespace: str, /, *, prefix: str | None = None, schema: str | None = None) -> Self:
        self = super().__new__(cls, namespace)
        self.prefix = prefix
        self.schema = schema
        return self

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({super().__repr__()}, prefix={self.prefix!r}, schema={self.schema!r})'

    def __setattr__(self, name: str, value: object, /) -> None:
        if name in self.__slots__ and hasattr(self, name):
            raise AttributeError(f'{self.__class__.__name__} object attribute {name!r} is read-only')
        return super().__setattr__(name, value)


class RelaxNGValidator:
    schema_directory = Path(__file__).parent / 'schema'

    def __init__(self, schema_file: str) -> None:
        self.schema_path = self.schema_directory / schema_file
        self.schema = etree.RelaxNG(file=str(self.schema_path))

    def validate(self, element: ETreeElement) -> None:
        if not self.schema.validate(element):
            raise ConfigurationError(f'Invalid document: {self.schema.error_log.last_error}')


class DataAdapter[T](Protocol):
    @staticmethod
    def xml_parse(value: str, /) -> T: ...

    @staticmethod
    def xml_build(value: T, /) -> str: ...


class StringAdapter:
    @staticmethod
    def xml_parse(value: str) -> str:
        return value.strip()

    @staticmethod
    def xml_build(value: str) -> str:
        return value


class BooleanAdapter:
    @staticmethod
    def xml_parse(value: str) -> bool:
        match value.strip():
            case 'true' | '1':
                return True
            case 'false' | '0':
                return False
            case _:
                raise ValueError(f'Invalid boolean value: {value!r}')

    @staticmethod
    def xml_build(value: bool) -> str:  # noqa: FBT001
        return 'true' if value else 'false'


class IntegerAdapter:
    def __init_subclass__(cls, *, min_value: int | None = None, max_value: int | None = None, name: str = 'integer', **kw: object) -> None:
        super().__init_subclass__(**kw)

        lower_bound = min_value if min_value is not None else -inf
        upper_bound = max_value if max_value is not None else +inf

        def xml_parse(value: str) -> int:
            number = int(value)
            if lower_bound <= number <= upper_bound:
                return number
            raise ValueError(f"invalid value '{value}' for {name}")

        def xml_build(value: int) -> str:
            if lower_bound <= value <= upper_bound:
                return str(value)
            raise ValueError(f"invalid value '{value}' for {name}")

        cls.xml_parse = staticmethod(xml_parse)  # type: ignore[method-assign]
        cls.xml_build = staticmethod(xml_build)  # type: ignore[method-assign]

    @staticmethod
    def xml_parse(value: str) -> int:
        return int(value)

    @staticmethod
    def xml_build(value: int) -> str:
        return str(value)


class PositiveIntegerAdapter(IntegerAdapter, min_value=+1, name='positive integer'):
    pass


_default_adapters: dict[type, type[DataAdapter[Any]]] = {str: StringAdapter, bool: BooleanAdapter, int: IntegerAdapter}


class FieldDescriptor[D](ABC):
    def __init__(self, data_type: type[D], /, *, name: str | None = None, adapter: type[DataAdapter[D]] | None = None) -> None:
        adapter = adapter or _default_adapters.get(data_type)
        if adapter is None:
            raise TypeError(f'No XML adapter available for {data_type.__qualname__}')
        self.name: str | None = None
        self.type = data_type
        self.xml_name = name
        self.adapter = adapter

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({self.type.__name__}, name={self.xml_name!r}, adapter={self.adapter.__qualname__})'

    def __set_name__(self, owner: type['XMLElement'], name: str) -> None:
        if not issubclass(owner, XMLElement):
            raise TypeError(f'Can only use {self.__class__.__qualname__} descriptors on XMLElement objects')
        self.name = name
        self.xml_name = self.xml_name or name.replace('_', '-')

    def _check(self, value: D) -> str:
        if not isinstance(value, self.type):
            raise TypeError(f'{self.name} must be of type {self.type.__qualname__}')
        return self.adapter.xml_build(value)

    def _parse(self, element: ETreeElement) -> D:
        try:
            return self.adapter.xml_parse(element.text or '')
        except ValueError as exc:
            raise ConfigurationError(f'Invalid value for element {self.xml_name!r}: {exc!s}') from exc

    @property
    def required(self) -> bool:
        return True

    @abstractmethod
    def from_xml(self, instance: 'XMLElement', elements: list[ETreeElement]) -> None: ...

    @abstractmethod
    def to_xml(self, instance: 'XMLElement') -> list[str]: ...


class DataElement[D](FieldDescriptor[D]):
    @overload
    def __get__(self, instance: None, owner: type['XMLElement']) -> Self: ...

    @overload
    def __get__(self, instance: 'XMLElement', owner: type['XMLElement'] | None = None) -> D: ...

    def __get__(self, instance: 'XMLElement | None', owner: type['XMLElement'] | None = None) -> Self | D:
        if instance is None:
            return self
        try:
            return instance._values_[self.name]
        except KeyError as exc:
            raise AttributeError(f'mandatory element {self.name!r} is missing') from exc

    def __set__(self, instance: 'XMLElement', value: D) -> None:
        self._check(value)
        instance._values_[self.name] = value

    def from_xml(self, instance: 'XMLElement', elements: list[ETreeElement]) -> None:
        if not elements:
            raise ConfigurationError(f'Missing mandatory element {self.xml_name!r}')
        if len(elements) > 1:
            raise ConfigurationError(f'Excess elements for {self.xml_name!r}')
        instance._values_[self.name] = self._parse(elements[0])

    def to_xml(self, instance: 'XMLElement') -> list[str]:
        return [self.adapter.xml_build(self.__get__(instance))]


class OptionalDataElement[D](DataElement[D]):
    def __init__(self, data_type: type[D], /, *, name: str | None = None, adapter: type[DataAdapter[D]] | None = None, default: D | None = None) -> None:
        super().__init__(data_type, name=name, adapter=adapter)
        self.default = default

    @property
    def required(self) -> bool:
        return False

    def __get__(self, instance: 'XMLElement | None', owner: type['XMLElement'] | None = None) -> Any:
        if instance is None:
            return self
        return instance._values_.get(self.name, self.default)

    def __set__(self, instance: 'XMLElement', value: D | None) -> None:
        if value is None:
            instance._values_.pop(self.name, None)
        else:
            super().__set__(instance, value)

    def from_xml(self, instance: 'XMLElement', elements: list[ETreeElement]) -> None:
        if elements:
            super().from_xml(instance, elements)

    def to_xml(self, instance: 'XMLElement') -> list[str]:
        value = instance._values_.get(self.name)
        return [self.adapter.xml_build(value)] if value is not None else []


class MultiDataElement[D](FieldDescriptor[D]):
    def __init__(self, data_type: type[D], /, *, name: str | None = None, adapter: type[DataAdapter[D]] | None = None, optional: bool = False) -> None:
        super().__init__(data_type, name=name, adapter=adapter)
        self.optional = optional

    @property
    def required(self) -> bool:
        return not self.optional

    def __get__(self, instance: 'XMLElement | None', owner: type['XMLElement'] | None = None) -> Any:
        if instance is None:
            return self
        return list(instance._values_.get(self.name, []))

    def __set__(self, instance: 'XMLElement', values: list[D]) -> None:
        values = list(values)
        if not values and not self.optional:
            raise ValueError(f'{self.name} must contain at least one value')
        for value in values:
            self._check(value)
        instance._values_[self.name] = values

    def from_xml(self, instance: 'XMLElement', elements: list[ETreeElement]) -> None:
        if not elements and not self.optional:
            raise ConfigurationError(f'Missing mandatory element {self.xml_name!r}')
        instance._values_[self.name] = [self._parse(element) for element in elements]

    def to_xml(self, instance: 'XMLElement') -> list[str]:
        return [self.adapter.xml_build(value) for value in instance._values_.get(self.name, [])]


class XMLElement:
    _name_: ClassVar[str | None] = None
    _namespace_: ClassVar[Namespace | None] = None

    _tag_: ClassVar[str | None] = None
    _fields_: ClassVar[dict[str, FieldDescriptor[Any]]] = {}

    _values_: dict[str, Any]

    def __init__(self, **kw: object) -> None:
        if self._tag_ is None:
            raise TypeError(f'Cannot instantiate abstract class {self.__class__.__qualname__!r} that does not specify a name')
        if unexpected := set(kw) - set(self._fields_):
            raise TypeError(f'got an unexpected keyword argument {unexpected.pop()!r}')
        if missing := {name for name, field in self._fields_.items() if field.required} - set(kw):
            raise TypeError(f'missing a required keyword argument {missing.pop()!r}')
        self._values_ = {}
        for name, value in kw.items():
            setattr(self, name, value)

    def __init_subclass__(cls, name: str | None = None, namespace: Namespace | None = None, **kw: object) -> None:
        super().__init_subclass__(**kw)
        if name is not None:
            cls._name_ = name
        if namespace is not None:
            cls._namespace_ = namespace
        if cls._name_ is not None:
            cls._tag_ = f'{{{cls._namespace_}}}{cls._name_}' if cls._namespace_ is not None else cls._name_
        cls._fields_ = cls._fields_ | {name: value for name, value in cls.__dict__.items() if isinstance(value, FieldDescriptor)}

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}({", ".join(f"{name}={getattr(self, name)!r}" for name in self._fields_)})'

    def __eq__(self, other: object) -> bool:
        if isinstance(other, XMLElement):
            return type(self) is type(other) and all(getattr(self, name) == getattr(other, name) for name in self._fields_)
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    def _child_tag(self, field: FieldDescriptor[Any]) -> str:
        return f'{{{self._namespace_}}}{field.xml_name}' if self._namespace_ is not None else str(field.xml_name)

    @classmethod
    def from_xml(cls, element: ETreeElement) -> Self:
        if cls._tag_ is None:
            raise TypeError(f'Cannot instantiate abstract class {cls.__qualname__!r} that does not specify a name')
        if element.tag != cls._tag_:
            raise ConfigurationError(f'The document element does not match the {cls.__qualname__} element: {element.tag!r} != {cls._tag_!r}')
        if cls._namespace_ is not None and cls._namespace_.schema is not None:
            RelaxNGValidator(cls._namespace_.schema).validate(element)
        instance = cls.__new__(cls)
        instance._values_ = {}
        for field in cls._fields_.values():
            field.from_xml(instance, [child for child in element if child.tag == instance._child_tag(field)])
        return instance

    @classmethod
    def from_string(cls, data: str | bytes) -> Self:
        if isinstance(data, str):
            data = data.encode()
        parser = etree.XMLParser(remove_blank_text=True, resolve_entities=False, no_network=True)
        try:
            element = etree.fromstring(data, parser)
        except etree.XMLSyntaxError as exc:
            raise ConfigurationError(f'Malformed document: {exc}') from exc
        return cls.from_xml(element)

    @classmethod
    def from_file(cls, path: str | PathLike[str]) -> Self:
        return cls.from_string(Path(path).expanduser().read_bytes())

    def to_xml(self) -> ETreeElement:
        nsmap = {self._namespace_.prefix: self._namespace_} if self._namespace_ is not None else None
        element = etree.Element(self._tag_, nsmap=nsmap)  # type: ignore[arg-type]
        for field in self._fields_.values():
            for text in field.to_xml(self):
                etree.SubElement(element, self._child_tag(field)).text = text
        return element

    def to_string(self, *, pretty_print: bool = True) -> str:
        return etree.tostring(self.to_xml(), encoding='unicode', pretty_print=pretty_print)
