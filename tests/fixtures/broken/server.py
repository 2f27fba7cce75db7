"""Research server definition with skill wiring mistakes."""

from typing import Literal

from mcpdecl import ISkill, ITool


class SearchTool(ITool):
    name: Literal["search"]
    description: Literal["Search documents"]
    params: {"query": str}
    hidden: Literal[True]


class SummarizeTool(ITool):
    name: Literal["summarize"]
    description: Literal["Summarize a document"]
    params: {"text": str}


class ExportTool(ITool):
    name: Literal["export"]
    description: Literal["Export results"]
    params: {"format": Literal["csv", "json"]}
    skill: Literal["reporting"]


class ResearchSkill(ISkill):
    name: Literal["research"]
    description: Literal["Research helpers"]
    components: {"tools": ["summarize", "translate"]}


class EmptySkill(ISkill):
    name: Literal["empty"]
    description: Literal["Nothing yet"]
    components: {}


class ResearchService:
    def summarize(self, text: str) -> str:
        return text[:100]
