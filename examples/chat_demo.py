"""Minimal demonstration of the chat service."""

from chat_core import ChatService

if __name__ == "__main__":
    service = ChatService()
    question = "Summarize what a Markdown sanitizer does in two sentences."
    result = service.send_message(question)
    print("Provider:", service.active_provider)
    for message in result.display if result else []:
        print(f"{message.sender}:", message.content)
