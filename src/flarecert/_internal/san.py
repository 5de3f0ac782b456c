"""Types for representing the set of domain names covered by one certificate."""
from typing import Any
from typing import Iterable
from typing import Iterator
from typing import List

from flarecert import errors


def normalize(domain: str) -> str:
    """Lower-case and trim a domain name."""
    return domain.strip().lower()


def is_wildcard(domain: str) -> bool:
    """Return True if this DNS name is a wildcard."""
    return domain.startswith('*.')


class DomainSet:
    """An ordered, de-duplicated collection of normalized domain names.

    Order of first occurrence is kept for display and for choosing the
    primary domain. Equality is set equality, so two DomainSets built from
    the same names in a different order, or with repeated entries, compare
    equal.

    """
    def __init__(self, domains: Iterable[str]) -> None:
        names: List[str] = []
        for domain in domains:
            name = normalize(domain)
            if name not in names:
                names.append(name)
        self._names = tuple(names)

    @property
    def names(self) -> List[str]:
        """Domain names in first-occurrence order."""
        return list(self._names)

    @property
    def primary(self) -> str:
        """The first domain of the set."""
        if not self._names:
            raise errors.ConfigurationError("At least one domain must be specified.")
        return self._names[0]

    def is_wildcard(self) -> bool:
        """Return True if any member of the set is a wildcard."""
        return any(is_wildcard(name) for name in self._names)

    def wildcard(self) -> str:
        """Return the first wildcard member, or the primary domain if there is none."""
        for name in self._names:
            if is_wildcard(name):
                return name
        return self.primary

    def __iter__(self) -> Iterator[str]:
        return iter(self._names)

    def __len__(self) -> int:
        return len(self._names)

    def __contains__(self, domain: object) -> bool:
        return isinstance(domain, str) and normalize(domain) in self._names

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, DomainSet):
            return NotImplemented
        return frozenset(self._names) == frozenset(other._names)

    def __hash__(self) -> int:
        return hash(frozenset(self._names))

    def __repr__(self) -> str:
        return 'DomainSet(%s)' % ', '.join(self._names)

    def __str__(self) -> str:
        return display(self._names)


def validate_domain(domain: str) -> str:
    """Validates a requested domain name and returns it normalized.

    :param str domain: Domain to check

    :raises ConfigurationError: for names that cannot be requested

    :returns: The lower-cased, trimmed domain
    :rtype: str

    """
    domain = normalize(domain)
    if not domain:
        raise errors.ConfigurationError("Domain cannot be empty.")
    try:
        domain.encode('ascii')
    except UnicodeError:
        raise errors.ConfigurationError("Non-ASCII domain names not supported. "
                                        "To issue for an Internationalized Domain Name, "
                                        "use Punycode.")

    # Separately check for odd "domains" like "http://example.com" to fail
    # fast and provide a clear error message
    for scheme in ["http", "https"]:
        if domain.startswith("{0}://".format(scheme)):
            raise errors.ConfigurationError(
                "Requested name {0} appears to be a URL, not a FQDN. "
                "Try again without the leading \"{1}://\".".format(domain, scheme))

    base = domain[2:] if is_wildcard(domain) else domain
    if any(c.isspace() for c in base):
        raise errors.ConfigurationError("Domain cannot contain spaces: {0}".format(domain))

    msg = "Requested domain {0} is not a FQDN because".format(domain)
    if len(base) > 255:
        raise errors.ConfigurationError("{0} it is too long.".format(msg))
    labels = base.split('.')
    if len(labels) < 2:
        raise errors.ConfigurationError("{0} it must have at least two labels.".format(msg))
    for label in labels:
        if not label:
            raise errors.ConfigurationError("{0} it contains an empty label.".format(msg))
        if len(label) > 63:
            raise errors.ConfigurationError("{0} label {1} is too long.".format(msg, label))
    return domain


def display(domains: Iterable[str]) -> str:
    """Return the domains in string form, separated by comma and space."""
    return ", ".join(domains)


def summarize(domains: List[str]) -> str:
    """Summarize a domain list as ``primary (+N more)``."""
    if not domains:
        return ""
    if len(domains) == 1:
        return domains[0]
    return "{0} (+{1} more)".format(domains[0], len(domains) - 1)
