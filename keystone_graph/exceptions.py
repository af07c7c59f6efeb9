"""
Error taxonomy for the keystone_graph package.
"""


class KeystoneGraphError(Exception):
    """Base class for all errors raised by keystone_graph"""


class MalformedInputError(KeystoneGraphError, ValueError):
    """
    Raised when an edge list cannot be turned into a graph.

    Parameters:
    -----------
    message : str
        Description of the problem
    line_number : int, optional
        1-based line of the offending edge, when parsing text
    line : str, optional
        The raw text of the offending line
    """
    def __init__(self, message, line_number=None, line=None):
        if line_number is not None:
            message = f"line {line_number}: {message}"
        super().__init__(message)
        self.line_number = line_number
        self.line = line


class IndexOutOfRangeError(KeystoneGraphError, IndexError):
    """
    Raised when the graph, the output plan and the kernel disagree about
    layout. Always a programming error; never caught inside the package.
    """
