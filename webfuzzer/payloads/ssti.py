"""Template-expression payloads. A hit renders 49 right after the marker."""

TEMPLATE = [
    "FUZZMARK{{7*7}}",
    "FUZZMARK${7*7}",
    "FUZZMARK#{7*7}",
    "FUZZMARK<%= 7*7 %>",
    "FUZZMARK${{7*7}}",
    "FUZZMARK{{= 7*7}}",
    "FUZZMARK{% 7*7 %}",
    "FUZZMARK<#= 7*7 #>",
    "FUZZMARK[[7*7]]",
    "FUZZMARK*(7*7)",
    "FUZZMARK@(7*7)",
]
