class MalformedResponseError(Exception):
    """The vendor returned a payload without the expected completion fields."""
