from .bundler import QuoteBundler, index_offerings  # noqa
from .policy import ValidityPolicy  # noqa
from .quote_generator import QuoteGenerator  # noqa
