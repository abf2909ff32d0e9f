import operator
import re

from .version import Version


class Rule:
    """
        A constraint over versions, e.g. the lifecycle versions that accept a flag.
    """

    RANGE_REGEX = re.compile(r"^(\[|\()\s*(.+?)\s*,\s*(.+?)\s*(\]|\))$")
    # longest operators first so '>=' is not read as '>'
    OPERATORS = (
        ('>=', operator.ge),
        ('<=', operator.le),
        ('>', operator.gt),
        ('<', operator.lt),
        ('=', operator.eq),
    )

    def __init__(self, rule_str: str):
        """
        - range: [1.0.0, 2.0.0], (1.0.0, 2.0.0), [1.0.0, 2.0.0), (1.0.0, 2.0.0]
        - compare: >=1.2.3, <2.0.0, >0.4.0
        - equal: 1.5.0 or =1.5.0
        """
        self.rule_str = rule_str.strip()
        self.check = self._parse_rule()

    def _parse_rule(self):
        match = self.RANGE_REGEX.match(self.rule_str)
        if match:
            start_bracket, start_str, end_str, end_bracket = match.groups()
            start, end = Version(start_str), Version(end_str)
            lower = operator.le if start_bracket == '[' else operator.lt
            upper = operator.le if end_bracket == ']' else operator.lt
            return lambda v: lower(start, v) and upper(v, end)

        for op, func in self.OPERATORS:
            if self.rule_str.startswith(op):
                target = Version(self.rule_str[len(op):].strip())
                return lambda v: func(v, target)

        target = Version(self.rule_str)
        return lambda v: v == target

    def __contains__(self, version) -> bool:
        """
            `version in rule`, strings are parsed first
        """
        if isinstance(version, str):
            version = Version(version)
        if not isinstance(version, Version):
            return False
        return self.check(version)

    def __str__(self):
        return self.rule_str

    def __repr__(self):
        return f"Rule('{self.rule_str}')"
