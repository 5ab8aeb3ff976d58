from dataclasses import dataclass

from rich.pretty import pprint

from argbind import *


@dataclass
class Point:
    x: float
    y: float


@command
@dataclass
class Example:
    file: str = argument()
    points: list[Point] = option("p")
    verbose: Count = option("v", factory=Count)
    labels: dict[str, int] = option(default="{}")
    extra: list[str] = rest()

    def run(self):
        pprint(self)


if __name__ == '__main__':
    pprint(Example)
    invoke(Example, "input.txt -vv --points [{1 2} {3.5 -4}] --labels {a:1,b:2} tail")
