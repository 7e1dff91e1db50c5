"""Prompts for structural generation of task trees."""

from __future__ import annotations

_FLAT_EXAMPLE = """{
  "topic": "Data Structures",
  "subtopics": [
    {
      "id": "arrays",
      "parentId": null,
      "name": "Arrays",
      "details": "Arrays are a collection of elements identified by index. They provide fast access and suit fixed-size collections.",
      "links": [
        {"title": "GeeksforGeeks - Arrays", "type": "website", "url": "https://www.geeksforgeeks.org/array-data-structure/"}
      ]
    },
    {
      "id": "static-vs-dynamic-arrays",
      "parentId": "arrays",
      "name": "Static vs Dynamic Arrays",
      "details": "Static arrays have a fixed size; dynamic arrays resize as elements are added.",
      "links": []
    },
    {
      "id": "linked-lists",
      "parentId": null,
      "name": "Linked Lists",
      "details": "A linear structure whose elements are connected through pointers.",
      "links": []
    }
  ]
}"""

MINDMAP_LOCAL_SYSTEM_PROMPT = f"""You are an assistant that breaks large tasks down into smaller, actionable subtasks
as a mind map. You always respond with a JSON structure and nothing else: no greeting, no
explanation, no Markdown.

Divide the task into logical, sequential subtasks and break those down further into concrete
steps. Every subtask must be well defined and achievable. Suggest helpful resources (books,
articles, tutorials, websites) in each node's "links" list; every link has a "type" that is one
of "website", "tutorial", "video", "book", "article", "forum" or "other".

The response is a flat list: every node has an "id", and "parentId" is null for top-level
subtasks or the id of the node it belongs to. Use this structure as the blueprint:

{_FLAT_EXAMPLE}
"""

MINDMAP_EXTERNAL_SYSTEM_PROMPT = f"""You are an assistant that breaks large tasks down into smaller, actionable subtasks
as a mind map. Respond with a single JSON object only.

Requirements:
- Major subtasks branch from the main task; break them down further into actionable steps.
- Indicate dependencies between tasks in the details where they matter.
- Only include links to resources that actually exist.
- Subtask names must differ from their parent's name.
- Use a flat list of nodes with "id", "parentId" (null for top-level subtasks), "name",
  "details" and "links" ("title", "type", "url").

Example of the expected shape:

{_FLAT_EXAMPLE}
"""


def build_generation_request(topic: str, node_id: str | None = None) -> str:
    """User message asking for a whole tree, or for the children of one node."""

    if node_id:
        return (
            f'Expand the subtask "{topic}" with node ID "{node_id}". '
            f'Top-level items of your answer must use "{node_id}" as their parentId.'
        )
    return f"Create a mind map that breaks down the following task: {topic}"
