# Service layer for the TCMG commander
# - backend:        ServerBackend contract + SubprocessBackend running the tcmg binary
# - keepalive:      process-wide keep-CPU-alive token (systemd-inhibit)
# - server_manager: ProcessSupervisor, start/stop/liveness of the card server
# - log_stream:     incremental log pulls by cursor + bounded display buffer
# - network:        WebIF endpoint discovery (primary / access point)
# - status_poller:  cancellable asyncio interval loops feeding the StatusView
# - host:           START/STOP command channel and boot auto-start
