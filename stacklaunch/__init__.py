"""
stacklaunch: local supervisor that provisions the message broker and starts
the agent processes and the frontend of a development stack in order.
"""
