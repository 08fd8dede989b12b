"""Remote model access: transport, request governor, prompts and the agentic loop."""
