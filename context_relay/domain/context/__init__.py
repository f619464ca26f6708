# This module handles context assembly for the response stage

# +---------------------+
# |   Long-term memory  |   (Process-resident, topic-tagged)
# |---------------------|
# | Promoted exchanges  |
# | Seeded memories     |
# +---------------------+

# +---------------------+
# |   Session memory    |   (Bounded, per orchestrator)
# |---------------------|
# | Message transcript  |
# | Working key/values  |
# +---------------------+

#    \    /
#     \  /
#      \/
# +------------------------------+
# |         Context frame        |   (Built once per message)
# |------------------------------|
# | Routing decision + reasoning |
# | Formatted tool results       |
# | Trimmed recent history       |
# | Current user message         |
# +------------------------------+
#         |
#         v
#   [response stage]
