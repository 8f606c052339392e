from enum import Enum


class GeneratorType(str, Enum):
    """Built-in generator keys.

    PropertySpec accepts either a member or its plain string value.
    """

    # identity
    NAME = "name"
    SURNAME = "surname"
    USERNAME = "username"
    EMAIL = "email"
    PHONE = "phone"
    ADDRESS = "address"
    COMPANY = "company"
    URL = "url"
    COUNTRY = "country"
    LANGUAGE = "language"
    PASSWORD = "password"
    DNI_CIF = "dni_cif"

    # numeric
    AGE = "age"
    NUMERIC = "numeric"
    BOOLEAN = "boolean"

    # dates
    DATE = "date"

    # structured
    JSON = "json"
    TEXT = "text"
    HTML = "html"

    # technical
    UUID = "uuid"
    IP_ADDRESS = "ip_address"
    MAC_ADDRESS = "mac_address"
    COLOR = "color"
    COORDINATE = "coordinate"
    HASH = "hash"
    HASH_PRESERVE = "hash_preserve"
    FILE = "file"
    UTM = "utm"

    # financial
    IBAN = "iban"
    CREDIT_CARD = "credit_card"
    MASKING = "masking"

    # relational / derived
    PATTERN_BASED = "pattern_based"
    NAME_FALLBACK = "name_fallback"
    COPY = "copy"
    SHUFFLE = "shuffle"
    ENUM = "enum"
    MAP = "map"

    # fixed values
    CONSTANT = "constant"
    NULL = "null"
    SERVICE = "service"
