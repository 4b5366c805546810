import json
import logging
import re

import requests

logger = logging.getLogger(__name__)

THINKING_FAILED = "Something went wrong while thinking. Please try again."
EMPTY_ANSWER = "I'm sorry, I couldn't process that request."
DEFAULT_DIAGRAM = "graph TD\nA[App] --> B[Default Architecture]"

ASK_PROMPT = """You are CodeSensei, an expert senior software architect.
You help developers understand complex codebases.

PROJECT SUMMARY:
{description}

CODEBASE CONTEXT (indexed from repository):
{context}

STRICT RULES:
- Use the provided CODEBASE CONTEXT to give specific, accurate answers based on the actual implementation.
- If the information isn't in the context, say you don't know rather than hallucinating.
- Be concise but thorough. Use code blocks for implementation details.

USER QUESTION:
{question}"""

DIAGRAM_PROMPT = """Based on this project context, generate a Mermaid.js flowchart (graph TD) representing the core system architecture. Return ONLY the mermaid code block, no extra text.

CONTEXT: {context}"""

_FENCE = re.compile(r'```(?:mermaid)?')


class LLMError(Exception):
    pass


class LLMClient:
    def __init__(self, settings, session=None):
        self.api_url = settings.llm_api_url
        self.api_key = settings.llm_api_key
        self.model = settings.llm_model
        self.temperature = settings.llm_temperature
        self.timeout = settings.request_timeout
        self.session = session or requests.Session()

    def complete(self, messages, temperature=None, max_tokens=2000):
        """Single chat-completions call; raises LLMError on any failure"""
        try:
            response = self.session.post(
                url=self.api_url,
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                    "X-Title": "CodeSensei",
                },
                data=json.dumps({
                    "model": self.model,
                    "messages": messages,
                    "temperature": self.temperature if temperature is None else temperature,
                    "max_tokens": max_tokens,
                }),
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()['choices'][0]['message']['content'] or ''
        except requests.RequestException as e:
            raise LLMError(f"LLM request failed: {e}") from e
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise LLMError(f"Malformed LLM response: {e}") from e

    def ask(self, question, project_id, description, store):
        """Answer a question about a project using its indexed codebase context"""
        prompt = ASK_PROMPT.format(
            description=description or 'No description provided.',
            context=store.context_for(project_id),
            question=question,
        )
        try:
            answer = self.complete([{"role": "user", "content": prompt}])
        except LLMError as e:
            logger.error("LLM error answering question for project %s: %s", project_id, e)
            return THINKING_FAILED
        return answer.strip() or EMPTY_ANSWER

    def architecture_diagram(self, context):
        """Mermaid flowchart source for the project architecture"""
        try:
            response = self.complete([{"role": "user", "content": DIAGRAM_PROMPT.format(context=context)}])
        except LLMError as e:
            logger.error("LLM error generating diagram: %s", e)
            return DEFAULT_DIAGRAM
        diagram = _FENCE.sub('', response).strip()
        return diagram or DEFAULT_DIAGRAM
